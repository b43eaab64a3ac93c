"""core/ -- Kernel modules for chirpy-auth (configuration).

Layer rule: core/ imports only stdlib + third-party libraries. auth/ imports
from core/, never the other way around.
"""
