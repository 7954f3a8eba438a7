"""
Errors raised while preparing data for the nest success model.
"""


class NestSuccessError(ValueError):
    """Base class for input problems detected before any model is fitted."""


class MissingLabelColumn(NestSuccessError):
    """The input table has no 'success' column, so no model can be trained."""

    def __init__(self, column: str = "success"):
        self.column = column
        super().__init__(
            f"Your nesting summary table does not have a column labelled '{column}'. "
            "Without this you cannot train the success model. Either add the column, "
            "rename a column that contains relevant information, or use 'predict_success' "
            "if you want to predict from an existing model."
        )


class MissingFeature(NestSuccessError):
    """A predictor required by the model formula is absent from the input table."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Required feature column missing from input table: {name}")
