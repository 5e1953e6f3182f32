"""
Bulk Content Generation Package

Orchestrates unattended multi-niche content runs:
- Job store and in-process job registry
- Work-item selection
- Fail-soft per-item pipeline
- Resumption of interrupted runs and daily schedules
"""
