"""iapdeploy CLI commands."""
