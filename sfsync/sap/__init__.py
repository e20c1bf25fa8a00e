from sfsync.sap.connector import SapConnector

__all__ = ["SapConnector"]
