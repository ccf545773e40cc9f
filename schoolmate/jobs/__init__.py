"""Recurring per-tenant maintenance jobs, run through the cross-tenant sweeper."""

from schoolmate.jobs.cleanup import FcmTokenCleanupJob, OtpCleanupJob

__all__ = ["OtpCleanupJob", "FcmTokenCleanupJob"]
