"""Destination-catalog token state persisted between runs."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from .dataclasses import TokenState


class TokenSessionManager:
    """Loads and saves Spotify OAuth tokens from a small JSON state file."""

    def __init__(self, state_file_path: Optional[str] = None) -> None:
        # Save state file in current working directory
        self.state_file = Path(state_file_path or '.spotify-tokens.json')
        self.logger = logging.getLogger(__name__)

        self.state = self._load_state()

    def _load_state(self) -> TokenState:
        """Load token state from file or start empty."""
        if self.state_file.exists():
            try:
                with open(self.state_file, 'r') as f:
                    state_data = json.load(f)
                self.logger.debug(f"Loaded token state from {self.state_file}")
                return TokenState.from_dict(state_data)
            except (json.JSONDecodeError, IOError, TypeError) as e:
                self.logger.warning(f"Failed to load token file: {e}, starting without tokens")

        return TokenState()

    def _save_state(self) -> None:
        try:
            with open(self.state_file, 'w') as f:
                json.dump(self.state.to_dict(), f, indent=2)
            self.logger.debug(f"Saved token state to {self.state_file}")
        except IOError as e:
            self.logger.error(f"Failed to save token file: {e}")

    def set_tokens(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        """Store a new access token, keeping the old refresh token unless a new one is given."""
        self.state.access_token = access_token
        if refresh_token is not None:
            self.state.refresh_token = refresh_token
        self.state.updated_at = datetime.now().isoformat()
        self._save_state()
        self.logger.info("Saved Spotify tokens")

    def clear(self) -> None:
        """Forget stored tokens (the state file is rewritten empty)."""
        self.state = TokenState()
        self._save_state()

    @property
    def access_token(self) -> Optional[str]:
        return self.state.access_token

    @property
    def has_token(self) -> bool:
        return bool(self.state.access_token)
