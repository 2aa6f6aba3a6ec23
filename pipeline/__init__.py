"""Pipeline execution modules for match discovery."""

from .runner import run_discovery, run_expiry_sweep, run_sweep_loop, DiscoveryRunResult

__all__ = ['run_discovery', 'run_expiry_sweep', 'run_sweep_loop', 'DiscoveryRunResult']
