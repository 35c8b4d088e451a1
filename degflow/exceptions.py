"""
Error taxonomy for DegFlow

Every error defined here is fatal to a pipeline run. Per-gene problems
(non-convergence, missing dispersion, unmapped identifiers) are represented
as NaN or fallback values inside otherwise successful results instead.
"""


class DegFlowError(Exception):
    """Base class for all DegFlow pipeline errors"""


class InputNotFoundError(DegFlowError, FileNotFoundError):
    """An input path does not resolve to a readable file"""


class FormatError(DegFlowError, ValueError):
    """A delimited input table or design formula is malformed"""


class InsufficientDataError(DegFlowError):
    """Filtering removed every gene or every sample"""


class SampleMismatchError(DegFlowError):
    """Count matrix samples have no corresponding metadata rows"""

    def __init__(self, missing):
        self.missing = list(missing)
        preview = ", ".join(map(str, self.missing[:10]))
        if len(self.missing) > 10:
            preview += ", ..."
        super().__init__(
            f"{len(self.missing)} sample(s) missing from metadata: {preview}"
        )


class InvalidLevelError(DegFlowError, ValueError):
    """A requested factor level is not among the observed levels"""


class ModelConvergenceError(DegFlowError):
    """The model fit failed for the dataset as a whole"""


class AnnotationError(DegFlowError):
    """The identifier-to-symbol source could not be queried at all"""


class EmptySelectionError(DegFlowError, ValueError):
    """A plotting input reduced to zero rows"""
