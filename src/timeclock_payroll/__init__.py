"""Time clock payroll engine.

Weekly overtime bucketing, effective-dated pay rates and shift-close
aggregation into daily payroll summaries.
"""

__version__ = "0.1.0"
