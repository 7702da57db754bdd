"""billing_batch.services -- sweep execution, job-run history and scheduling."""
