"""In-memory job state shared by the generate routes. Lost on restart."""

# job_id -> queue.Queue of progress events, present while the job runs
job_queues = {}

# job_id -> result dict ({"text", "json_mode", "folder"} or {"error"})
job_stores = {}
