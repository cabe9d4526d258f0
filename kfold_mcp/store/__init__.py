"""Run persistence."""

from .runs import RunRecord, RunStore, config_to_dict

__all__ = ["RunRecord", "RunStore", "config_to_dict"]
