"""Destination server client and report uploader."""

from sonarferry.destination.client import DestinationClient
from sonarferry.destination.uploader import CeTask, ReportUploader

__all__ = ["DestinationClient", "CeTask", "ReportUploader"]
