"""
Kube Actuator - Kubernetes Action Executor
==========================================

Executes horizontal scaling actions recommended by the analysis
service against the cluster it runs in.
"""
