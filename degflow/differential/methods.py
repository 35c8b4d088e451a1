"""
Model fitting backends (PyDESeq2, DESeq2 through R)

Each backend takes a filtered count matrix, aligned metadata, a design
formula and a contrast, and returns the library's results table plus a
variance-stabilized matrix. Size factors, dispersion shrinkage, the NB GLM,
the Wald test and Benjamini-Hochberg correction all belong to the library.
"""

import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd

from ..exceptions import FormatError, InvalidLevelError, ModelConvergenceError
from ..utils import RInterface, get_logger, log_execution_time, r_string_vector
from .results import RESULT_COLUMNS, Contrast, FitResult, check_design

logger = get_logger(__name__)


class ModelFitter(ABC):
    """Base class for model fitting backends"""

    name = "base"

    def __init__(self, params: Optional[Dict[str, Any]] = None):
        self.params = params or {}
        self.alpha = self.params.get("alpha", 0.05)
        self.cooks_filter = self.params.get("cooks_filter", True)
        self.independent_filter = self.params.get("independent_filter", True)

    @abstractmethod
    def fit(
        self,
        counts: pd.DataFrame,
        metadata: pd.DataFrame,
        design: str,
        contrast: Contrast,
    ) -> FitResult:
        """Fit the model and test ``contrast``"""

    def _check_inputs(
        self, counts: pd.DataFrame, metadata: pd.DataFrame, design: str, contrast: Contrast
    ) -> str:
        if list(metadata.index) != list(counts.columns):
            raise FormatError("Metadata rows must follow count matrix column order")

        formula = check_design(design, metadata, contrast)

        levels = set(metadata[contrast.factor].astype(str))
        for level in (contrast.tested, contrast.reference):
            if level not in levels:
                raise InvalidLevelError(
                    f"Contrast level '{level}' not found in '{contrast.factor}'"
                )
        return formula

    def _finalize(
        self,
        results: pd.DataFrame,
        vst: pd.DataFrame,
        counts: pd.DataFrame,
        size_factors: Optional[pd.Series] = None,
    ) -> FitResult:
        missing = [col for col in RESULT_COLUMNS if col not in results.columns]
        if missing:
            raise ModelConvergenceError(f"Results table lacks columns: {missing}")

        results = results.reindex(counts.index)[RESULT_COLUMNS].astype(float)
        results.index.name = counts.index.name
        vst = vst.reindex(index=counts.index, columns=counts.columns)

        n_na = int(results["padj"].isna().sum())
        if n_na:
            logger.info(
                f"{n_na} genes have no adjusted p-value (outliers, low counts or "
                "independent filtering)"
            )
        return FitResult(results=results, vst=vst, size_factors=size_factors)


class PyDESeq2Fitter(ModelFitter):
    """DESeq2 model fit with the pydeseq2 library"""

    name = "pydeseq2"

    def __init__(self, params: Optional[Dict[str, Any]] = None):
        super().__init__(params)
        self.n_cpus = self.params.get("n_cpus")
        self.refit_cooks = self.params.get("refit_cooks", True)

    @log_execution_time
    def fit(
        self,
        counts: pd.DataFrame,
        metadata: pd.DataFrame,
        design: str,
        contrast: Contrast,
    ) -> FitResult:
        from pydeseq2.dds import DeseqDataSet
        from pydeseq2.default_inference import DefaultInference
        from pydeseq2.ds import DeseqStats

        formula = self._check_inputs(counts, metadata, design, contrast)
        logger.info(f"Fitting {formula} with pydeseq2 for {contrast.name}")

        inference = DefaultInference(n_cpus=self.n_cpus)

        # pydeseq2 expects samples x genes
        sample_counts = counts.T.astype(int)

        try:
            dds = DeseqDataSet(
                counts=sample_counts,
                metadata=metadata,
                design=formula,
                refit_cooks=self.refit_cooks,
                inference=inference,
                quiet=True,
            )
            dds.deseq2()

            stats = DeseqStats(
                dds,
                contrast=contrast.as_list(),
                alpha=self.alpha,
                cooks_filter=self.cooks_filter,
                independent_filter=self.independent_filter,
                inference=inference,
                quiet=True,
            )
            stats.summary()
            results = stats.results_df.copy()

            dds.vst(use_design=False)
            vst = pd.DataFrame(
                dds.layers["vst_counts"],
                index=dds.obs_names,
                columns=dds.var_names,
            ).T
        except Exception as e:
            raise ModelConvergenceError(
                f"pydeseq2 fit failed for {contrast.name}: {e}"
            ) from e

        if "size_factors" in dds.obs:
            size_factors = pd.Series(dds.obs["size_factors"], index=dds.obs_names)
        else:
            size_factors = pd.Series(dds.obsm["size_factors"], index=dds.obs_names)

        return self._finalize(results, vst, counts, size_factors)


class RDESeq2Fitter(ModelFitter):
    """DESeq2 model fit in R, driven through generated scripts"""

    name = "DESeq2"
    r_packages = ["DESeq2"]

    def __init__(
        self,
        params: Optional[Dict[str, Any]] = None,
        r_interface: Optional[RInterface] = None,
    ):
        super().__init__(params)
        self.r_interface = r_interface or RInterface(self.params.get("r_config"))
        self.working_dir = self.params.get("working_dir")

    @log_execution_time
    def fit(
        self,
        counts: pd.DataFrame,
        metadata: pd.DataFrame,
        design: str,
        contrast: Contrast,
    ) -> FitResult:
        formula = self._check_inputs(counts, metadata, design, contrast)
        logger.info(f"Fitting {formula} with DESeq2 (R) for {contrast.name}")

        missing = self.r_interface.missing_packages(self.r_packages)
        if missing:
            failed = self.r_interface.install_packages(missing)
            if failed:
                raise ModelConvergenceError(f"Failed to install R packages: {failed}")

        working_dir = Path(
            self.working_dir or tempfile.mkdtemp(prefix="degflow_deseq2_")
        )
        working_dir.mkdir(parents=True, exist_ok=True)

        counts.to_csv(working_dir / "counts.csv")
        metadata.to_csv(working_dir / "coldata.csv")

        result = self.r_interface.run_script(
            self._create_deseq2_script(metadata, formula, contrast), working_dir
        )
        if not result["success"]:
            raise ModelConvergenceError(
                f"DESeq2 failed for {contrast.name}: {result.get('error', 'Unknown R error')}"
            )

        results = pd.read_csv(working_dir / "results.csv", index_col=0)
        vst = pd.read_csv(working_dir / "vst.csv", index_col=0)
        vst.columns = vst.columns.astype(str)
        size_factors = pd.read_csv(working_dir / "size_factors.csv", index_col=0)[
            "size_factor"
        ]

        results.index = results.index.astype(str)
        vst.index = vst.index.astype(str)
        return self._finalize(results, vst, counts, size_factors)

    def _create_deseq2_script(
        self, metadata: pd.DataFrame, formula: str, contrast: Contrast
    ) -> str:
        """Create R script for DESeq2 analysis"""

        relevel_lines = []
        for column in metadata.columns:
            if isinstance(metadata[column].dtype, pd.CategoricalDtype):
                levels = [str(level) for level in metadata[column].cat.categories]
                relevel_lines.append(
                    f'coldata[["{column}"]] <- factor(coldata[["{column}"]], '
                    f"levels = {r_string_vector(levels)})"
                )
        relevel_block = "\n".join(relevel_lines)

        independent = "TRUE" if self.independent_filter else "FALSE"
        cooks_arg = "" if self.cooks_filter else ", cooksCutoff = FALSE"

        return f"""
suppressPackageStartupMessages(library(DESeq2))

counts <- as.matrix(read.csv("counts.csv", row.names = 1, check.names = FALSE))
coldata <- read.csv("coldata.csv", row.names = 1, check.names = FALSE,
                    stringsAsFactors = FALSE)
coldata <- coldata[colnames(counts), , drop = FALSE]

{relevel_block}

dds <- DESeqDataSetFromMatrix(countData = counts, colData = coldata,
                              design = {formula})
dds <- DESeq(dds)

res <- results(dds,
               contrast = {r_string_vector(contrast.as_list())},
               alpha = {self.alpha},
               independentFiltering = {independent}{cooks_arg})
res_df <- as.data.frame(res)
write.csv(res_df[, c("baseMean", "log2FoldChange", "lfcSE", "stat", "pvalue", "padj")],
          "results.csv")

# vst() subsamples 1000 genes for its fit
if (nrow(dds) >= 1000) {{
    vsd <- vst(dds, blind = TRUE)
}} else {{
    vsd <- varianceStabilizingTransformation(dds, blind = TRUE)
}}
write.csv(assay(vsd), "vst.csv")
write.csv(data.frame(size_factor = sizeFactors(dds)), "size_factors.csv")

cat("DESeq2 analysis completed successfully\\n")
"""


FITTERS = {
    PyDESeq2Fitter.name: PyDESeq2Fitter,
    RDESeq2Fitter.name: RDESeq2Fitter,
}


def get_fitter(name: str, params: Optional[Dict[str, Any]] = None) -> ModelFitter:
    """Create a model fitter by method name"""
    if name not in FITTERS:
        raise ValueError(f"Unknown differential method '{name}'. Choose from {list(FITTERS)}")
    return FITTERS[name](params)
