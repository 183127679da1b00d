"""StoreFlow marketplace backend."""
