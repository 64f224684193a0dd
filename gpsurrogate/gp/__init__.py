from gpsurrogate.gp import kernels
from gpsurrogate.gp.gaussian_distribution import FiniteDistribution
from gpsurrogate.gp.process import GaussianProcess, PosteriorProcess

__all__ = ["kernels", "FiniteDistribution", "GaussianProcess", "PosteriorProcess"]
