from dataclasses import dataclass, asdict

# Alert types
PRICE_SPIKE  = "price_spike"
PRICE_DROP   = "price_drop"
HIGH_DEMAND  = "high_demand"
LOW_SUPPLY   = "low_supply"
FROST        = "frost"
HEAT_STRESS  = "heat_stress"
STRONG_WIND  = "strong_wind"
HEAVY_RAIN   = "heavy_rain"

# Severities. Market rules grade low/medium/high; weather rules use the
# advisory scale moderate/severe.
SEVERITY_LOW      = "low"
SEVERITY_MEDIUM   = "medium"
SEVERITY_HIGH     = "high"
SEVERITY_MODERATE = "moderate"
SEVERITY_SEVERE   = "severe"


@dataclass(frozen=True)
class Alert:
    id:              str
    type:            str
    subject:         str      # commodity name or weather metric
    message:         str
    severity:        str
    timestamp:       float
    action_required: bool

    def to_dict(self) -> dict:
        return asdict(self)
