"""
Configuration module for the proof lifecycle service.
Loads all environment variables needed by the engine and its handlers.
"""
import os


class Config:
    """Centralized configuration from environment variables."""

    # AWS Region
    AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')

    # Optional endpoint override (DynamoDB Local / LocalStack)
    DYNAMODB_ENDPOINT_URL = os.environ.get('DYNAMODB_ENDPOINT_URL', '')

    # DynamoDB Tables
    PROOF_SUBMISSIONS_TABLE = os.environ.get('PROOF_SUBMISSIONS_TABLE', 'ProofSubmissions')
    PROOF_TRANSITIONS_TABLE = os.environ.get('PROOF_TRANSITIONS_TABLE', 'ProofTransitions')
    ACTIVE_PROOFS_TABLE = os.environ.get('ACTIVE_PROOFS_TABLE', 'ActiveProofs')

    # EventBridge
    PROOF_EVENT_BUS_NAME = os.environ.get('PROOF_EVENT_BUS_NAME', '')
    PROOF_EVENT_SOURCE = os.environ.get('PROOF_EVENT_SOURCE', 'marketplace.proofs')

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


config = Config()
