import os
import sys

from config import load_config
from excel_parser import build_sample_workbook
from reportgen.templates import write_sample_templates

# Write the 16 report templates and an example workbook
root = sys.argv[1] if len(sys.argv) > 1 else (load_config()['template_source'] or 'sample_templates')
written = write_sample_templates(root)
print(f'Created {len(written)} templates under {root}')

workbook_path = os.path.join(root, 'vulnerability_assessment_template.xlsx')
with open(workbook_path, 'wb') as f:
    f.write(build_sample_workbook())
print(f'Created sample workbook: {workbook_path}')
