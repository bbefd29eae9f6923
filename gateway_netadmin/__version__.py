__title__ = "gateway_netadmin"
__description__ = (
    "Reconciles the desired network and Wi-Fi configuration of a Linux gateway with"
    " the running daemons."
)
__version__ = "0.3.0"
__status__ = "alpha"
__license__ = "BSD-3-Clause"
__license_url__ = "https://opensource.org/licenses/BSD-3-Clause"
