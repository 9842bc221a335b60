from app.store.device_storage import DeviceStorage
from app.store.errors import StoreAccessError, StoreError, StoreOfflineError
from app.store.remote import FirebaseRestStore, InMemoryRemoteStore, RemoteStore, build_remote_store

__all__ = [
    'DeviceStorage',
    'FirebaseRestStore',
    'InMemoryRemoteStore',
    'RemoteStore',
    'StoreAccessError',
    'StoreError',
    'StoreOfflineError',
    'build_remote_store',
]
