"""
Secret Management Service

Fetches the SSH private key from Google Secret Manager and exposes it as a
short-lived, owner-only key file.
"""

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import DefaultCredentialsError

from iapdeploy.exceptions import CredentialError
from iapdeploy.models.request import ResolvedConfig

KEY_FILE_NAME = "ssh_key"


class SecretService:
    """
    Secret Manager access for deployment credentials.

    Responsibilities:
    - Fetch the latest version of the SSH key secret
    - Write it to a 0600 file for the duration of a run
    - Wipe and remove that file on every exit path
    """

    def __init__(self, client=None, logger=None):
        """
        Initialize secret service.

        Args:
            client: SecretManagerServiceClient (created lazily if None)
            logger: DeployLogger instance (optional)
        """
        self._client = client
        self.logger = logger

    @property
    def client(self):
        """Lazy initialization of the Secret Manager client."""
        if self._client is None:
            from google.cloud import secretmanager

            try:
                self._client = secretmanager.SecretManagerServiceClient()
            except DefaultCredentialsError as e:
                raise CredentialError(
                    "No Google Cloud credentials available",
                    context=f"{e}. Run: gcloud auth application-default login",
                )
        return self._client

    def fetch_ssh_key(self, config: ResolvedConfig) -> bytes:
        """
        Fetch the latest version of the SSH key secret.

        Raises:
            CredentialError: If the secret is missing, denied or empty
        """
        name = f"{config.credential_ref}/versions/latest"

        if self.logger:
            self.logger.log(f"Fetching SSH key from {name}", "INFO")

        try:
            response = self.client.access_secret_version(request={"name": name})
        except GoogleAPIError as e:
            raise CredentialError(
                f"Could not access secret '{config.ssh_key_secret}'",
                context=f"{type(e).__name__}: {e}",
            )

        data = response.payload.data
        if not data:
            raise CredentialError(f"Secret '{config.ssh_key_secret}' is empty")
        return data

    @contextmanager
    def ssh_key_file(self, config: ResolvedConfig, workdir: Path) -> Iterator[Path]:
        """
        Materialize the SSH key as an owner-only file inside workdir.

        The file is overwritten and removed when the context exits, whether
        the body succeeded or raised.

        Args:
            config: Resolved deployment config
            workdir: Private directory for the run

        Yields:
            Path to the key file
        """
        data = self.fetch_ssh_key(config)
        if not data.endswith(b"\n"):
            data += b"\n"

        key_path = Path(workdir) / KEY_FILE_NAME
        fd: Optional[int] = None
        try:
            fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            os.write(fd, data)
            os.close(fd)
            fd = None
            yield key_path
        finally:
            if fd is not None:
                os.close(fd)
            self._wipe(key_path, len(data))

    def _wipe(self, key_path: Path, size: int) -> None:
        if not key_path.exists():
            return
        with open(key_path, "r+b") as f:
            f.write(b"\0" * size)
            f.flush()
        key_path.unlink()

        if self.logger:
            self.logger.log("SSH key file removed", "INFO")
