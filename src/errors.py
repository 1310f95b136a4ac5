"""
exception types for the batch. every error the pipeline raises itself
inherits from PipelineError so run_pipeline can report it in one place.
"""


class PipelineError(Exception):
    """base class for pipeline failures"""


class ConfigError(PipelineError):
    """bad environment override or CLI value"""


class LoadError(PipelineError):
    """raw CSV is missing or structurally wrong (column count / names)"""


class NormalizationError(PipelineError):
    """a non-empty staging value could not be cast (age, timestamp, amount)"""

    def __init__(self, column, value, reason):
        self.column = column
        self.value = value
        super().__init__(f"cannot cast {column}={value!r}: {reason}")
