#!/usr/bin/env python3
"""
UPMS - Container Entrypoint

Bootstraps the UPMS project inside its container and then serves it in the
foreground.

Usage:
    python run.py                      # Full bootstrap, then serve on 0.0.0.0:80
    python run.py --no-serve           # Bootstrap only
    python run.py --skip-restore       # Keep the current database contents
    python run.py --port 8080          # Serve on another port

Steps:
    1. Check the project directory (/upms)
    2. Create .env from .env.example when missing
    3. composer install when vendor/ is missing (PHP 8.4 / 8.2)
    4. Install postgresql-client + xz-utils when psql/xz are missing
    5. Load .env
    6. Wait until the database server accepts connections
    7. Create every database declared by a *_DATABASE / *_DB_NAME key
    8. php artisan migrate
    9. Restore the newest /db_backup/*.sql.xz into the target database
   10. php artisan key:generate, reset user passwords
   11. php artisan serve

Environment Variables:
    - BOOTSTRAP_PROJECT_PATH: Defaults to /upms
    - BOOTSTRAP_BACKUP_DIR: Defaults to /db_backup
    - BOOTSTRAP_DB_READY_TIMEOUT: Defaults to 60 seconds
    - BOOTSTRAP_SERVER_PORT: Defaults to 80
"""

from upms_bootstrap.cli import entrypoint

if __name__ == '__main__':
    entrypoint()
