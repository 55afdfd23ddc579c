
HOURS_IN_DAY: int = 24
MINUTES_IN_HOUR: int = 60
SECONDS_IN_HOUR: int = 3600

# Simulated day shape
SUNRISE_HOUR: float = 6.0
SUNSET_HOUR: float = 18.0
G_MAX: float = 900.0  # W/m²: peak irradiance at solar noon
G_STC: float = 1000.0  # W/m²: Standard Test Condition irradiance reference
T_STC: float = 25.0  # °C: Standard Test Condition cell temperature

# Plant defaults
NOCT: float = 45.0
TEMP_COEFFICIENT: float = -0.004  # per °C, crystalline silicon
DERATE: float = 0.95
INVERTER_EFFICIENCY: float = 0.98
DEFAULT_CAPACITY_KW: float = 1.0  # used when a site has no rated capacity

# Measurement noise
POWER_NOISE_KW: float = 0.2
WIND_SPEED_MAX: float = 10.0
WIND_DIR_MAX: float = 360.0

WEATHER_DECIMALS: int = 2
POWER_DECIMALS: int = 4

# Telemetry rows written by the simulator
SIM_DEVICE_TYPE: str = "SIMULATED_INVERTER"
POWER_PARAMETER: str = "Power"
POWER_UNIT: str = "kW"
