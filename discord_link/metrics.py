from prometheus_client import Counter, make_asgi_app

received_actions = Counter('flow_actions_received', 'Count number of verification actions received.', ['action', ])
completed_actions = Counter('flow_actions_completed', 'Count number of verification actions completed.', ['action', ])
errored_actions = Counter('flow_actions_errored', 'Count number of verification actions errored.', ['action', ])

metrics_app = make_asgi_app()
