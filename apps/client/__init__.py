"""Client-side adapters for the provisioning endpoint and Firebase Auth."""

from .firebase_rest import FirebaseRestIdentityClient  # noqa: F401
from .provisioning_client import ProvisioningClient, ProvisioningClientConfig  # noqa: F401
