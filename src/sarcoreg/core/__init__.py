from .window import Window, embed, extract
from .spectral import forward_fft2d, inverse_fft2d, is_power2, check_power2
from .localsum import build_integral, window_sum, local_sum

__all__ = [
    "Window",
    "embed",
    "extract",
    "forward_fft2d",
    "inverse_fft2d",
    "is_power2",
    "check_power2",
    "build_integral",
    "window_sum",
    "local_sum",
]
