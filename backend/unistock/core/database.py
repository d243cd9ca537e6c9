"""
Conexão com o banco PostgreSQL (Supabase)

Este módulo centraliza as formas de acesso ao banco:
- psycopg2 direto (queries SQL das repositories)
- Supabase client (RPCs encrypt_token / decrypt_token)

Author: UNISTOCK
Date: 2025-10-17
"""
import time
import logging

import psycopg2
from psycopg2.extras import RealDictCursor
from supabase import create_client, Client

from .config import settings

logger = logging.getLogger(__name__)


# ============================================================================
# psycopg2 Direct Connections
# ============================================================================

def _database_url() -> str:
    database_url = settings.DATABASE_URL
    if not database_url:
        raise ValueError("DATABASE_URL not configured")
    return database_url


def get_db_connection():
    """
    Get a direct psycopg2 database connection (returns tuples)

    Example:
        conn = get_db_connection()
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM orders")
        results = cursor.fetchall()
        cursor.close()
        conn.close()
    """
    return psycopg2.connect(_database_url())


def get_db_connection_dict():
    """
    Get a database connection with RealDictCursor (returns dictionaries)

    Used by every repository, rows come back as dicts ready to be mapped
    into domain models.
    """
    return psycopg2.connect(_database_url(), cursor_factory=RealDictCursor)


# ============================================================================
# Database Connection with Retry Logic (SSL Failure Recovery)
# ============================================================================

def _connect_with_retry(cursor_factory=None, max_retries=3, retry_delay=1.0):
    database_url = _database_url()
    last_error = None

    for attempt in range(1, max_retries + 1):
        try:
            logger.debug(f"Database connection attempt {attempt}/{max_retries}")
            if cursor_factory:
                conn = psycopg2.connect(database_url, cursor_factory=cursor_factory)
            else:
                conn = psycopg2.connect(database_url)

            cursor = conn.cursor()
            cursor.execute("SELECT 1")
            cursor.close()

            return conn

        except psycopg2.OperationalError as e:
            last_error = e
            error_msg = str(e)

            if "SSL connection has been closed unexpectedly" in error_msg:
                logger.warning(f"SSL connection error on attempt {attempt}/{max_retries}: {error_msg}")
            else:
                logger.warning(f"Connection error on attempt {attempt}/{max_retries}: {error_msg}")

            if attempt < max_retries:
                delay = retry_delay * (2 ** (attempt - 1))
                logger.info(f"Retrying in {delay:.2f} seconds...")
                time.sleep(delay)
            else:
                logger.error(f"All {max_retries} connection attempts failed")

    raise last_error


def get_db_connection_with_retry(max_retries=3, retry_delay=1.0):
    """
    Get a psycopg2 connection with automatic retry on SSL/connection failures

    Retries OperationalError up to max_retries times with exponential
    backoff (retry_delay, 2*retry_delay, ...). Any other error fails
    immediately.

    Raises:
        psycopg2.OperationalError: If all retry attempts fail
    """
    return _connect_with_retry(None, max_retries, retry_delay)


def get_db_connection_dict_with_retry(max_retries=3, retry_delay=1.0):
    """Same as get_db_connection_with_retry but rows come back as dicts"""
    return _connect_with_retry(RealDictCursor, max_retries, retry_delay)


# ============================================================================
# Supabase Client (token encryption RPCs)
# ============================================================================

_supabase: Client = None


def get_supabase() -> Client:
    """
    Lazily create the service-role Supabase client

    Usage:
        sb = get_supabase()
        sb.rpc("decrypt_token", {"encrypted_token": value}).execute()
    """
    global _supabase
    if _supabase is None:
        if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
            raise ValueError("SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY not configured")
        _supabase = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    return _supabase
