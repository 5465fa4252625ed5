from forecaster.data.models import ApiModel

class PredictionResult(ApiModel):
    price: float
    min_price: float
    max_price: float
    roi: float
    confidence: float
    sentiment: str
