"""Table lifecycle authorization gate for a shared table-storage cluster."""
