"""CrudHub: users, tasks, products and settings behind a JWT-secured REST API."""
