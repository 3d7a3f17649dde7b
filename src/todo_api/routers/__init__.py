"""HTTP routers of the ToDo API."""
