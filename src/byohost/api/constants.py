# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/byohost/api/constants.py

# ------------------------------------------------------------------------------
# API coordinates
# ------------------------------------------------------------------------------

INFRA_GROUP = "infrastructure.cluster.x-k8s.io"
INFRA_VERSION = "v1beta1"
HOST_KIND = "ByoHost"
HOST_PLURAL = "byohosts"
INFRA_MACHINE_KIND = "ByoMachine"
INFRA_MACHINE_PLURAL = "byomachines"

CAPI_GROUP = "cluster.x-k8s.io"
CAPI_VERSION = "v1beta1"
MACHINE_KIND = "Machine"
MACHINE_PLURAL = "machines"
MACHINE_SET_KIND = "MachineSet"
MACHINE_SET_PLURAL = "machinesets"
MACHINE_DEPLOYMENT_KIND = "MachineDeployment"
MACHINE_DEPLOYMENT_PLURAL = "machinedeployments"

# ------------------------------------------------------------------------------
# Labels / annotations / finalizers
# ------------------------------------------------------------------------------

CLUSTER_NAME_LABEL = "cluster.x-k8s.io/cluster-name"
DEPLOYMENT_NAME_LABEL = "cluster.x-k8s.io/deployment-name"

HOST_CLEANUP_ANNOTATION = "byoh.infrastructure.cluster.x-k8s.io/cleanup"
K8S_VERSION_ANNOTATION = "byoh.infrastructure.cluster.x-k8s.io/k8sversion"
BUNDLE_REGISTRY_ANNOTATION = "byoh.infrastructure.cluster.x-k8s.io/bundle-registry"
ENDPOINT_IP_ANNOTATION = "byoh.infrastructure.cluster.x-k8s.io/endpointip"

# cleared together once the host is detached
HOST_ANNOTATIONS = (
    HOST_CLEANUP_ANNOTATION,
    K8S_VERSION_ANNOTATION,
    BUNDLE_REGISTRY_ANNOTATION,
    ENDPOINT_IP_ANNOTATION,
)

DELETE_MACHINE_ANNOTATION = "cluster.x-k8s.io/delete-machine"
EXCLUDE_NODE_DRAINING_ANNOTATION = "machine.cluster.x-k8s.io/exclude-node-draining"

HOST_FINALIZER = "byohost.infrastructure.cluster.x-k8s.io/agent-cleanup"

# ------------------------------------------------------------------------------
# Secrets
# ------------------------------------------------------------------------------

BOOTSTRAP_SECRET_KEY = "value"
INSTALL_SCRIPT_KEY = "install"
UNINSTALL_SCRIPT_KEY = "uninstall"
UNINSTALL_SECRET_PREFIX = "byoh-uninstall-"

# ------------------------------------------------------------------------------
# Event types and reasons
# ------------------------------------------------------------------------------

EVENT_NORMAL = "Normal"
EVENT_WARNING = "Warning"

EV_BOOTSTRAP_SECRET_UNAVAILABLE = "BootstrapSecretUnavailable"
EV_READ_BOOTSTRAP_SECRET_FAILED = "ReadBootstrapSecretFailed"
EV_BOOTSTRAP_SUCCEEDED = "BootstrapNodeSucceeded"
EV_BOOTSTRAP_FAILED = "BootstrapNodeFailed"
EV_INSTALLATION_SECRET_UNAVAILABLE = "InstallationSecretUnavailable"
EV_READ_INSTALLATION_SECRET_FAILED = "ReadInstallationSecretFailed"
EV_INSTALL_SUCCEEDED = "InstallScriptExecutionSucceeded"
EV_INSTALL_FAILED = "InstallScriptExecutionFailed"
EV_UNINSTALL_SECRET_MISSING = "UninstallationSecretMissing"
EV_RESET_SUCCEEDED = "ResetNodeSucceeded"
EV_RESET_FAILED = "ResetNodeFailed"
EV_UNINSTALL_FAILED = "UninstallScriptExecutionFailed"
EV_CLEANUP_SUCCEEDED = "HostCleanupSucceeded"
EV_SAVE_UNINSTALL_SECRET_FAILED = "SaveUninstallationSecretFailed"
