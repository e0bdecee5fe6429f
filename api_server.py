"""
Clinic Management - REST API Server

Entry point: python api_server.py
"""

from clinicapi.api.app import main

if __name__ == "__main__":
    main()
