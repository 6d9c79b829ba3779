"""iapdeploy - run golden-image Ansible playbooks on private VMs over IAP."""

__version__ = "1.0.0"
