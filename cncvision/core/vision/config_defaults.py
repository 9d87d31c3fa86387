"""Default values for the vision core."""

# Pipeline
DEFAULT_SENSITIVITY = 0.33
MIN_AREA_FRACTION = 0.01  # of the surface pixel area
MAX_PIXELS = 2_000_000  # larger surfaces are downscaled first
RETRIEVAL = "external"  # 'external' or 'list'

# Smoothing
BLUR_KERNEL = 5
BLUR_SIGMA = 0.0

# Gradient / curvature operators
SOBEL_KSIZE = 3
LAPLACE_KSIZE = 3
GRADIENT_WEIGHT = 0.5

# Morphology (closing)
CLOSE_KERNEL = 3

# Resource tracking
TRACKER_CAPACITY = 15

# Backend readiness
READY_POLL_INTERVAL_S = 0.1
READY_BACKOFF = 1.5
READY_MAX_INTERVAL_S = 1.0
READY_TIMEOUT_S = 10.0

# Executor
SETTLE_DELAY_S = 0.05
FAILURE_MESSAGE_MS = 5000
READY_MESSAGE_MS = 1400
RESIZE_MESSAGE_MS = 3000
