from prefetch_oracle.models.requests import OutcomeRequest, PredictRequest

__all__ = ["OutcomeRequest", "PredictRequest"]
