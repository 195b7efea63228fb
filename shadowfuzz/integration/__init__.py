"""
Campaign configuration, driver and CLI
"""

from .campaign import ArgumentDrawer, CampaignReport, CampaignRunner, RunReport, run_campaign
from .config import CampaignConfig, load_config

__all__ = [
    "ArgumentDrawer",
    "CampaignReport",
    "CampaignRunner",
    "RunReport",
    "run_campaign",
    "CampaignConfig",
    "load_config",
]
