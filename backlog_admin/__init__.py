"backlog-admin"
