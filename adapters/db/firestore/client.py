"""Firestore client factory."""

import logging
import os
from typing import Optional

from google.auth import default
from google.cloud import firestore


logger = logging.getLogger(__name__)


class FirestoreClientFactory:
    """Firestore client factory."""

    @staticmethod
    def create_client(project_id: Optional[str] = None, emulator_host: Optional[str] = None) -> firestore.Client:
        """Create a Firestore client, pointing at the emulator when one is configured."""

        try:
            if emulator_host:
                logger.info(f"Using Firestore emulator at {emulator_host}")

                os.environ['FIRESTORE_EMULATOR_HOST'] = emulator_host
                client_project_id = project_id or os.getenv('GOOGLE_CLOUD_PROJECT') or 'local-dev'

                return firestore.Client(project=client_project_id)

            if project_id:
                logger.info(f"Creating Firestore client for project: {project_id}")

                return firestore.Client(project=project_id)

            credentials, adc_project = default()
            logger.info(f"Using ADC credentials for project: {adc_project}")

            return firestore.Client(project=adc_project, credentials=credentials)
        except Exception as e:
            logger.error(f"Failed to create Firestore client: {e}")
            raise


def get_firestore_client(config) -> firestore.Client:
    """Build a client from an ``AuthConfig``."""

    return FirestoreClientFactory.create_client(
        project_id=getattr(config, 'gcp_project_id', None),
        emulator_host=getattr(config, 'firestore_emulator_host', None),
    )
