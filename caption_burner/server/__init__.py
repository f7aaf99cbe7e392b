"""HTTP API for submitting burn-in jobs and downloading results."""
