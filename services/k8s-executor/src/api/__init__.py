"""
Kube Actuator - K8s Executor API Package
"""
