from .gaussian import GaussianPoints, rgb2sh, sh2rgb
