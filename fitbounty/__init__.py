"""FitBounty: money-backed fitness challenges driven by social mentions."""
