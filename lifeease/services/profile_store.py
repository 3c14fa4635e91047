"""
PROFILE STORE MODULE
====================

The collaborator interface the onboarding flow calls to persist what the user
entered. Fields are merged shallowly into one profile record stored in the
LocalStore under PROFILE_KEY; complete_profile() marks onboarding as done.

The record layout is {"onboarded": bool, "onboarding": {field: value, ...}}.
"""

import copy
import logging
from typing import Any, Dict

from config import PROFILE_KEY
from lifeease.storage import LocalStore


logger = logging.getLogger("LifeEase")


class ProfileStore:
    def __init__(self, store: LocalStore):
        self.store = store

    def load(self) -> Dict[str, Any]:
        """Return a copy of the profile, or an empty not-onboarded profile."""
        profile = self.store.get(PROFILE_KEY) or {}
        return {
            "onboarded": bool(profile.get("onboarded", False)),
            "onboarding": copy.deepcopy(profile.get("onboarding") or {}),
        }

    def save_profile(self, partial: Dict[str, Any]) -> Dict[str, Any]:
        """Merge the given fields into the stored onboarding answers; returns the updated profile."""
        if not isinstance(partial, dict):
            raise ValueError("Profile fields must be a mapping")
        with self.store.lock:
            profile = self.load()
            profile["onboarding"].update(copy.deepcopy(partial))
            self.store.set(PROFILE_KEY, profile)
        logger.info("Saved profile fields: %s", ", ".join(sorted(partial)) or "(none)")
        return profile

    def complete_profile(self) -> Dict[str, Any]:
        """Mark onboarding as complete; returns the updated profile."""
        with self.store.lock:
            profile = self.load()
            profile["onboarded"] = True
            self.store.set(PROFILE_KEY, profile)
        logger.info("Onboarding completed")
        return profile
