"""Temporal client factory.

Creates connections to Temporal Cloud (or a local dev server) using
credentials from the environment.
"""

import os
from typing import Optional
import ssl
from pathlib import Path

# Load .env file if it exists
from dotenv import load_dotenv
env_path = Path(__file__).resolve().parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

from temporalio.client import Client


LOCAL_ENDPOINT = "localhost:7233"


async def get_temporal_client() -> Client:
    """Create and return a Temporal client.

    Reads configuration from environment variables:
    - TEMPORAL_ENDPOINT: Temporal endpoint (e.g., "temporal.example.com:7233")
    - TEMPORAL_NAMESPACE: Namespace (e.g., "default")
    - TEMPORAL_API_KEY: API key for Cloud
    - TEMPORAL_CERT_PATH: Path to client certificate (optional, for mTLS)

    Without TEMPORAL_API_KEY the client connects to a local dev server
    without TLS.

    Returns:
        Connected Temporal client

    Raises:
        ValueError: If a Cloud endpoint is set without an API key
    """
    endpoint = os.getenv("TEMPORAL_ENDPOINT")
    namespace = os.getenv("TEMPORAL_NAMESPACE", "default")
    api_key = os.getenv("TEMPORAL_API_KEY")
    cert_path = os.getenv("TEMPORAL_CERT_PATH")

    if not api_key:
        target = endpoint or LOCAL_ENDPOINT
        if not target.startswith(("localhost", "127.0.0.1")):
            raise ValueError(
                "TEMPORAL_API_KEY environment variable not set. "
                "Set to your Temporal Cloud API key, or point TEMPORAL_ENDPOINT at a local server"
            )
        return await Client.connect(target, namespace=namespace)

    if not endpoint:
        raise ValueError(
            "TEMPORAL_ENDPOINT environment variable not set. "
            "Set to your Temporal Cloud endpoint (e.g., 'temporal.example.com:7233')"
        )

    tls_config: Optional[ssl.SSLContext] = ssl.create_default_context()
    if cert_path:
        tls_config.load_cert_chain(cert_path)

    # For Temporal Cloud, the API key is passed as an authorization header
    client = await Client.connect(
        target_host=endpoint,
        namespace=namespace,
        tls=tls_config,
        api_key=api_key,
    )

    return client
