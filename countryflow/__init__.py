"""countryflow: country pipeline on a transactional event outbox with retry sweep."""
