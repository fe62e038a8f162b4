"""
Database access
"""
from .database import DatabaseConfig, MongoCollectionClient, create_database_client
