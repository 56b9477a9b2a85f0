"""Authentication blueprint: login, logout, registration."""
