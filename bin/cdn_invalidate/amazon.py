from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import boto3

from cdn_invalidate.errors import StartupError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AwsTransport:
    """How to reach AWS: region, credentials profile and an optional custom CA bundle.

    Built once at startup; every client used during a run comes from here.
    """

    region: str
    profile: str | None = None
    ca_bundle: Path | None = None

    @classmethod
    def create(cls, region: str, profile: str | None = None, cacert: str | os.PathLike | None = None) -> AwsTransport:
        ca_bundle = None
        if cacert:
            ca_bundle = Path(cacert)
            if not ca_bundle.is_file() or not os.access(ca_bundle, os.R_OK):
                raise StartupError(f"Supplied cacert option to a file that does not exist: {cacert}")
            print("CloudfrontInvalidation: ca cert handling enabled")
            logger.debug("Using CA bundle %s for all AWS calls", ca_bundle)
        return cls(region=region, profile=profile, ca_bundle=ca_bundle)

    def _session(self) -> boto3.session.Session:
        return boto3.session.Session(region_name=self.region, profile_name=self.profile)

    def client(self, service_name: str) -> Any:
        kwargs: dict[str, Any] = {}
        if self.ca_bundle:
            kwargs["verify"] = str(self.ca_bundle)
        return self._session().client(service_name, **kwargs)

    def cloudformation_client(self) -> Any:
        return self.client("cloudformation")

    def cloudfront_client(self) -> Any:
        return self.client("cloudfront")
