"""In-app notifications, event dispatch and on-demand scans."""
