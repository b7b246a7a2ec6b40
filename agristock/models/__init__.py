from agristock.models.inventory import Inventory, InventoryMovement
